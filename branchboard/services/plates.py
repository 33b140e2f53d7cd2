import re


def normalize_plate(plate: str) -> str:
    return re.sub(r"\s+", " ", plate.strip()).upper()


def build_plate(city: str, letters: str, numbers: str, is_ev: bool) -> str:
    """
    Compose a German plate from its parts, e.g. ("m", "ab", "1234") -> "M - AB 1234".
    EV plates carry a trailing "E".
    """
    city = re.sub(r"[^a-zA-Z]", "", city or "")
    letters = re.sub(r"[^a-zA-Z]", "", letters or "")
    numbers = re.sub(r"[^0-9]", "", numbers or "")
    plate = ""
    if city and letters:
        plate = f"{city} - {letters} {numbers}".strip()
    elif city:
        plate = city
    if is_ev and plate:
        plate += "E"
    return plate.upper()
