def secure_input(prompt: str) -> str:
    """
    Ввод из консоли без пробелов по краям; EOF считается пустым вводом
    """
    try:
        return input(prompt).strip()
    except EOFError:
        return ""


def parse_number(raw: str):
    """Число из пользовательского ввода или None"""
    try:
        return float(raw.strip().replace(',', '.'))
    except (AttributeError, ValueError):
        return None
