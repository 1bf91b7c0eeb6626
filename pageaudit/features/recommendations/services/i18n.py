"""Message catalogue for recommendation texts (en, es, de)."""
import re
from typing import Dict

from pageaudit.platform.config import settings

LANGUAGE_RE = re.compile(r"^[a-z]{2}$")

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "category.structure": "Page structure",
        "category.forms": "Forms",
        "category.keyboard": "Keyboard access",
        "category.aria": "ARIA",
        "category.tables": "Tables",
        "category.color-contrast": "Color contrast",
        "category.images": "Images",
        "category.on-page-seo": "On-page SEO",
        "category.technical-seo": "Technical SEO",
        "category.other": "Other",
        "recommendation.title": "{category}: {message}",
        "recommendation.description": "{message}. Found {occurrences} time(s), affecting {affected} element(s).",
        "recommendation.action": "{fix}",
        "recommendation.action_default": "Review the affected elements and correct the issue.",
        "upgrade.features.all_findings": "Every finding with its exact location",
        "upgrade.features.all_recommendations": "All recommendations with step-by-step details",
        "upgrade.features.pdf": "Downloadable PDF report",
    },
    "es": {
        "category.structure": "Estructura de la página",
        "category.forms": "Formularios",
        "category.keyboard": "Acceso por teclado",
        "category.aria": "ARIA",
        "category.tables": "Tablas",
        "category.color-contrast": "Contraste de color",
        "category.images": "Imágenes",
        "category.on-page-seo": "SEO en la página",
        "category.technical-seo": "SEO técnico",
        "category.other": "Otros",
        "recommendation.title": "{category}: {message}",
        "recommendation.description": "{message}. Encontrado {occurrences} vez/veces, afecta a {affected} elemento(s).",
        "recommendation.action": "{fix}",
        "recommendation.action_default": "Revise los elementos afectados y corrija el problema.",
        "upgrade.features.all_findings": "Todos los hallazgos con su ubicación exacta",
        "upgrade.features.all_recommendations": "Todas las recomendaciones con detalles paso a paso",
        "upgrade.features.pdf": "Informe PDF descargable",
    },
    "de": {
        "category.structure": "Seitenstruktur",
        "category.forms": "Formulare",
        "category.keyboard": "Tastaturzugang",
        "category.aria": "ARIA",
        "category.tables": "Tabellen",
        "category.color-contrast": "Farbkontrast",
        "category.images": "Bilder",
        "category.on-page-seo": "On-Page-SEO",
        "category.technical-seo": "Technisches SEO",
        "category.other": "Sonstiges",
        "recommendation.title": "{category}: {message}",
        "recommendation.description": "{message}. {occurrences} Mal gefunden, betrifft {affected} Element(e).",
        "recommendation.action": "{fix}",
        "recommendation.action_default": "Prüfen Sie die betroffenen Elemente und beheben Sie das Problem.",
        "upgrade.features.all_findings": "Alle Befunde mit genauer Position",
        "upgrade.features.all_recommendations": "Alle Empfehlungen mit Schritt-für-Schritt-Details",
        "upgrade.features.pdf": "PDF-Bericht zum Herunterladen",
    },
}


def validate_language(language) -> str:
    """Return a supported two-letter language code, falling back to the default."""
    if not isinstance(language, str):
        return settings.DEFAULT_LANGUAGE
    code = language.strip().lower()
    if not LANGUAGE_RE.match(code) or code not in settings.SUPPORTED_LANGUAGES or code not in MESSAGES:
        return settings.DEFAULT_LANGUAGE
    return code


def t(key: str, language: str = "en", **params) -> str:
    """Translate key into language, falling back to English, then to the key itself."""
    catalogue = MESSAGES.get(language) or MESSAGES["en"]
    template = catalogue.get(key) or MESSAGES["en"].get(key) or key
    return template.format(**params) if params else template


def category_label(category: str, language: str = "en") -> str:
    label = t(f"category.{category}", language)
    return category if label == f"category.{category}" else label
