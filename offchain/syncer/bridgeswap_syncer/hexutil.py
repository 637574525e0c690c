"""Hex string helpers."""


def prefix_0x(value: str) -> str:
    return value if value.startswith("0x") else f"0x{value}"


def unprefix_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value
