"""Location normalisation for Colombian stores (WooCommerce state codes)."""

import unicodedata

# Department name -> WooCommerce state code. Bogota is billed under Cundinamarca.
COLOMBIA_STATES = {
    "AMAZONAS": "AMA", "ANTIOQUIA": "ANT", "ARAUCA": "ARA", "ATLÁNTICO": "ATL", "ATLANTICO": "ATL",
    "BOGOTÁ": "CUN", "BOGOTA": "CUN", "DC": "CUN", "BOLÍVAR": "BOL", "BOLIVAR": "BOL",
    "BOYACÁ": "BOY", "BOYACA": "BOY", "CALDAS": "CAL", "CAQUETÁ": "CAQ", "CAQUETA": "CAQ",
    "CASANARE": "CAS", "CAUCA": "CAU", "CESAR": "CES", "CHOCÓ": "CHO", "CHOCO": "CHO",
    "CÓRDOBA": "COR", "CORDOBA": "COR", "CUNDINAMARCA": "CUN", "GUAINÍA": "GUA", "GUAINIA": "GUA",
    "GUAVIARE": "GUV", "HUILA": "HUI", "LA GUAJIRA": "LAG", "MAGDALENA": "MAG", "META": "MET",
    "NARIÑO": "NAR", "NORTE DE SANTANDER": "NSA", "PUTUMAYO": "PUT", "QUINDÍO": "QUI", "QUINDIO": "QUI",
    "RISARALDA": "RIS", "SAN ANDRÉS": "SAP", "SANTANDER": "SAN", "SUCRE": "SUC", "TOLIMA": "TOL",
    "VALLE": "VAC", "VALLE DEL CAUCA": "VAC", "VAUPÉS": "VAU", "VAUPES": "VAU", "VICHADA": "VID",
}


def state_code(state_name: str) -> str:
    """Map a department name to its code; short values and unknown names pass through."""
    if not state_name or len(state_name) <= 3:
        return state_name or ""
    return COLOMBIA_STATES.get(state_name.strip().upper(), state_name)


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_city(city: str) -> str:
    """Upper-case and accent-free, the form shipping carriers match on."""
    return strip_accents(city.strip().upper())


def normalize_state_code(state: str, country_code: str = "CO") -> str:
    """Prefix a bare state code with the country, e.g. ANT -> CO-ANT."""
    state = state.strip().upper()
    prefix = f"{country_code.upper()}-"
    return state if state.startswith(prefix) else f"{prefix}{state}"
