# ============================================================================
# src/order_proof/config/env_loader.py
# ============================================================================
"""
.env loading for the settings groups.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env_file(env_path: Optional[Path] = None) -> bool:
    """Load a .env file into the process environment if one exists."""
    candidates = [env_path] if env_path else [
        Path(__file__).parent.parent.parent.parent / '.env',
        Path.cwd() / '.env',
    ]
    for candidate in candidates:
        if candidate and candidate.exists():
            load_dotenv(candidate)
            return True
    return False
