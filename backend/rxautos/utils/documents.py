"""Brazilian document (CPF/CNPJ) and phone validation."""

import re
from typing import Literal

DocumentType = Literal["cpf", "cnpj"]

_PHONE_RE = re.compile(r"^(?:55)?\d{2}9?\d{8}$")
_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def only_digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _all_same(digits: str) -> bool:
    return len(set(digits)) == 1


def validate_cpf(cpf: str) -> bool:
    digits = only_digits(cpf)
    if len(digits) != 11 or _all_same(digits):
        return False

    numbers = [int(d) for d in digits]
    for position in (9, 10):
        total = sum(n * (position + 1 - i) for i, n in enumerate(numbers[:position]))
        check = 11 - total % 11
        if (0 if check >= 10 else check) != numbers[position]:
            return False
    return True


def validate_cnpj(cnpj: str) -> bool:
    digits = only_digits(cnpj)
    if len(digits) != 14 or _all_same(digits):
        return False

    numbers = [int(d) for d in digits]
    for position, weights in ((12, _CNPJ_WEIGHTS_1), (13, _CNPJ_WEIGHTS_2)):
        remainder = sum(n * w for n, w in zip(numbers[:position], weights)) % 11
        if (0 if remainder < 2 else 11 - remainder) != numbers[position]:
            return False
    return True


def validate_document(document: str) -> tuple[bool, DocumentType | None]:
    """Validate a CPF (11 digits) or CNPJ (14 digits), punctuation ignored.

    Returns ``(is_valid, type)``; type is None when the length matches neither.
    """
    digits = only_digits(document)
    if len(digits) == 11:
        return validate_cpf(digits), "cpf"
    if len(digits) == 14:
        return validate_cnpj(digits), "cnpj"
    return False, None


def format_document(document: str) -> str:
    """``12345678909`` -> ``123.456.789-09``; CNPJ likewise. Anything else is returned as-is."""
    digits = only_digits(document)
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return document


def validate_phone(phone: str) -> bool:
    """Brazilian landline or mobile with area code, optional 55 country prefix."""
    return bool(_PHONE_RE.match(only_digits(phone)))
