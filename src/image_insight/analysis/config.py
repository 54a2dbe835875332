"""Language configuration and fixed texts for image analysis and chat."""

from enum import Enum
from typing import Dict


class Language(str, Enum):
    """Supported output languages."""
    FR = "fr"  # French
    EN = "en"  # English

    @classmethod
    def normalize(cls, language: str) -> "Language":
        """Normalize language string to Language enum."""
        language_lower = language.lower().strip()
        if language_lower in ("en", "english", "eng", "anglais"):
            return cls.EN
        elif language_lower in ("fr", "french", "fra", "francais", "français"):
            return cls.FR
        else:
            # Default to French for unknown languages
            return cls.FR


ANALYSIS_PROMPTS: Dict[Language, str] = {
    Language.FR: """Analyse cette image et fournis les informations suivantes en français. Réponds uniquement avec un seul objet JSON.
1. 'titles': Un tableau de 2-3 chaînes de caractères pour des titres créatifs.
2. 'captions': Un tableau de 2-3 chaînes de caractères pour des légendes courtes pour les réseaux sociaux.
3. 'excerpts': Un tableau d'exactement 2 objets pour des extraits littéraires. Chaque objet doit contenir 'extrait', 'auteur', 'oeuvre', et 'traduction'. Si l'extrait original est en français, le champ 'traduction' doit être une chaîne vide.""",

    Language.EN: """Analyze this image and provide the following information in English. Answer with a single JSON object only.
1. 'titles': An array of 2-3 strings with creative titles.
2. 'captions': An array of 2-3 strings with short social media captions.
3. 'excerpts': An array of exactly 2 objects with literary excerpts. Each object must contain 'extrait' (the excerpt), 'auteur' (the author), 'oeuvre' (the work), and 'traduction' (an English translation). If the original excerpt is in English, the 'traduction' field must be an empty string.""",
}

LOCATION_PROMPTS: Dict[Language, str] = {
    Language.FR: """4. 'location': L'image a été prise aux coordonnées GPS latitude {latitude}, longitude {longitude}. Déduis-en le lieu de prise de vue sous la forme d'un objet avec 'city', 'region' et 'country'. Si le lieu ne peut pas être déterminé, 'location' doit être null.""",

    Language.EN: """4. 'location': The image was taken at GPS coordinates latitude {latitude}, longitude {longitude}. Resolve the shooting location as an object with 'city', 'region' and 'country'. If the location cannot be determined, 'location' must be null.""",
}

NO_LOCATION_PROMPTS: Dict[Language, str] = {
    Language.FR: "4. 'location': Aucune coordonnée GPS n'est disponible, le champ 'location' doit être null.",
    Language.EN: "4. 'location': No GPS coordinates are available, the 'location' field must be null.",
}

SYSTEM_INSTRUCTIONS: Dict[Language, str] = {
    Language.FR: (
        "Tu es un assistant IA amical et serviable pour l'application Image Insight. "
        "Tu aides les utilisateurs à propos de leurs images, de la photographie, "
        "ou de tout autre sujet. Réponds en français."
    ),
    Language.EN: (
        "You are a friendly and helpful AI assistant for the Image Insight application. "
        "You help users with their images, photography, or any other topic. "
        "Answer in English."
    ),
}

# Model turn persisted when a chat reply cannot be produced
APOLOGY_TEXTS: Dict[Language, str] = {
    Language.FR: "Désolé, une erreur s'est produite. Veuillez réessayer.",
    Language.EN: "Sorry, something went wrong. Please try again.",
}

ANALYSIS_ERROR_MESSAGES: Dict[Language, str] = {
    Language.FR: "Une erreur est survenue lors de l'analyse de l'image. Veuillez réessayer.",
    Language.EN: "An error occurred while analyzing the image. Please try again.",
}


def get_system_instruction(language: Language) -> str:
    return SYSTEM_INSTRUCTIONS.get(language, SYSTEM_INSTRUCTIONS[Language.FR])


def get_apology_text(language: Language) -> str:
    return APOLOGY_TEXTS.get(language, APOLOGY_TEXTS[Language.FR])


def get_analysis_error_message(language: Language) -> str:
    return ANALYSIS_ERROR_MESSAGES.get(language, ANALYSIS_ERROR_MESSAGES[Language.FR])
