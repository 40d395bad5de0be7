"""Text normalization helpers shared by the extraction pipeline."""
import re
import unicodedata
from typing import List, Tuple

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_ES_PLURAL_CONSONANTS = set("rnldjz")

STOPWORDS = frozenset({
    "de", "del", "con", "sin", "y", "o", "e", "la", "el", "los", "las", "lo",
    "al", "en", "un", "una", "uno", "unos", "unas", "para", "por", "que",
    "mas", "me", "mi", "te", "se", "le", "les", "su", "sus", "tu", "tus",
})

# Words that show up in orders but never identify a product
ORDER_FILLER = frozenset({
    "quiero", "queria", "quisiera", "dame", "dar", "mandame", "manda", "traeme",
    "pedir", "pido", "pedido", "agrega", "agregame", "agregar", "suma", "sumale",
    "sumame", "pone", "poneme", "favor", "porfa", "gracias", "hola", "tambien",
    "otra", "otro", "otras", "otros", "solo", "solamente", "unicamente", "mejor",
    "sean", "dejalo", "cambia", "cambialo", "bueno", "tengo", "tenes", "hay", "cada",
    "media", "docena", "docenas", "par", "cuarto", "pareja",
    "dos", "tres", "cuatro", "cinco", "seis", "siete", "ocho", "nueve", "diez",
})


def normalize(text: str) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


def stem(word: str) -> str:
    """Very small Spanish plural stemmer: empanadas -> empanada, alfajores -> alfajor."""
    if len(word) <= 3 or not word.endswith("s") or word.endswith("ss"):
        return word
    word = word[:-1]
    if len(word) > 4 and word.endswith("e") and word[-2] in _ES_PLURAL_CONSONANTS:
        return word[:-1]
    return word


def tokenize(text: str) -> List[Tuple[str, int]]:
    """Split normalized text into (token, position) pairs."""
    return [(m.group(0), m.start()) for m in _TOKEN_RE.finditer(text)]


def keywords(text: str, min_length: int = 3) -> List[str]:
    """Stemmed content words of a (normalized) text."""
    result = []
    for token, _ in tokenize(text):
        if len(token) < min_length or token in STOPWORDS or token.isdigit():
            continue
        result.append(stem(token))
    return result
