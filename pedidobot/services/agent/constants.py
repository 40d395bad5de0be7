"""Keyword and pattern tables for intent detection.

Everything here is matched against normalized text (lower-case, no accents).
"""

# Message starts with one of these
GREETING_PHRASES = [
    "hola",
    "holi",
    "holis",
    "buenas",
    "buenos dias",
    "buenas tardes",
    "buenas noches",
    "buen dia",
    "hello",
    "hi",
    "saludos",
    "que tal",
    "quiero hacer un pedido",
]

OFF_TOPIC_KEYWORDS = [
    "politica",
    "elecciones",
    "gobierno",
    "deportes",
    "futbol",
    "messi",
    "clima",
    "lluvia",
    "noticias",
    "coronavirus",
    "covid",
    "empleo",
    "novio",
    "novia",
    "salud",
    "doctor",
    "medicina",
]

ESCALATION_KEYWORDS = [
    "humano",
    "gerente",
    "encargado",
    "hablar con una persona",
    "hablar con alguien",
    "reclamo",
]

AFFIRMATIVE_WORDS = {
    "si", "sip", "sii", "dale", "listo", "ok", "okay", "oka", "okey", "perfecto",
    "correcto", "confirmo", "confirmar", "confirma", "bueno", "va", "joya",
    "genial", "claro", "exacto", "obvio", "buenisimo",
}

AFFIRMATIVE_PHRASES = ["esta bien", "de una", "asi esta bien", "todo bien"]

NEGATIVE_WORDS = {"no", "nop", "nope", "nah", "negativo"}

# Allowed around a short yes/no without turning it into something else
ANSWER_FILLER = {
    "el", "la", "pedido", "todo", "asi", "gracias", "por", "favor", "porfa",
    "nomas", "eso", "es", "ya", "che", "entonces", "pues",
}

EXPLICIT_CONFIRM_PATTERN = r"\bconfirm(?:ar|o|a|alo|amos|en)\b"

EXPLICIT_CANCEL_PATTERN = (
    r"\b(?:cancel(?:ar|a|alo|o|en|emos)|olvidalo|olvidate"
    r"|borr(?:ar|a|alo)\s+(?:todo|el\s+pedido)|cambie\s+de\s+idea|cambio\s+de\s+idea)\b"
)

# Whole message is just one of these
BARE_CANCEL_WORDS = {"borrar", "borra", "borralo", "anular", "anulalo"}

STATUS_PATTERN = (
    r"\b(?:mi pedido|que pedi|que tengo|ver (?:el |mi )?pedido|pedido actual|resumen"
    r"|cuanto (?:es|sale|seria|va|te debo|queda)|total|mi orden|como va)\b"
)

MENU_PATTERN = r"\b(?:menu|carta|que tienen|que hay|que venden|opciones|precios)\b"

REMOVE_PATTERN = (
    r"\b(?:quit|sac|elimin|borr|remov|remuev)"
    r"(?:a|ar|ame|ale|alo|ala|alas|alos|en|e|emos)\b"
)

REPLACE_ALL_PATTERN = r"\b(?:solo|solamente|unicamente|nada mas que)\b"

CHANGE_QUANTITY_PATTERN = r"\b(?:que sean|cambia\w*\s+a|deja\w*\s+en|en (?:vez|lugar) de)\b"
