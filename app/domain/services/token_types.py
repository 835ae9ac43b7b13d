from __future__ import annotations

from decimal import Decimal
import re


AUXILIARY_TOKEN = "0x2::sui::SUI"
LP_TOKEN_PATTERN = re.compile(r"LPCoin<([^,]+),\s*([^>]+)>")


def sort_token_types(token0: str, token1: str) -> tuple[str, str]:
    if token0 == token1:
        raise ValueError("Identical tokens cannot form a pair.")
    return (token0, token1) if token0 < token1 else (token1, token0)


def extract_lp_tokens(lp_token_type: str) -> tuple[str, str] | None:
    match = LP_TOKEN_PATTERN.search(lp_token_type)
    if not match:
        return None
    return sort_token_types(match.group(1).strip(), match.group(2).strip())


def is_lp_token(token_type: str) -> bool:
    return LP_TOKEN_PATTERN.search(token_type) is not None


def extract_token_symbol(token_type: str) -> str:
    if "::sui::SUI" in token_type:
        return "SUI"
    if "::victory_token::VICTORY_TOKEN" in token_type:
        return "VICTORY"
    parts = token_type.split("::")
    if len(parts) >= 2 and parts[-1]:
        return parts[-1].upper()
    return "UNKNOWN"


def scale_amount(raw: object, decimals: int) -> Decimal:
    return Decimal(str(raw)) / (Decimal(10) ** decimals)
