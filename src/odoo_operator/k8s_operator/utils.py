from typing import Dict


def format_selector(selector: Dict[str, str]) -> str:
    return ','.join(f'{key}={value}' for key, value in sorted(selector.items()))
