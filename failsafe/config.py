"""
FailSafe Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Core Versioning ---
    CORE_VERSION: str = "1.0.0"

    # --- Workspace ---
    WORKSPACE_ROOT: str = os.getenv("FAILSAFE_WORKSPACE_ROOT", ".")
    MAX_WORKSPACE_FILES: int = int(
        os.getenv("FAILSAFE_MAX_WORKSPACE_FILES", "10000")
    )

    # --- Rules ---
    # Empty = use the built-in inherent rules
    RULES_PATH: str = os.getenv("FAILSAFE_RULES_PATH", "")

    # --- Claim Verification ---
    MODIFICATION_WINDOW_SECONDS: int = int(
        os.getenv("FAILSAFE_MODIFICATION_WINDOW", "300")
    )
    VERIFY_CONCURRENCY: int = int(
        os.getenv("FAILSAFE_VERIFY_CONCURRENCY", "8")
    )

    # --- Pattern Scanning ---
    CHAT_LIKELIHOOD_THRESHOLD: float = float(
        os.getenv("FAILSAFE_CHAT_THRESHOLD", "0.1")
    )

    # --- Tech Debt ---
    LONG_FUNCTION_LINES: int = int(os.getenv("FAILSAFE_LONG_FUNCTION_LINES", "50"))
    LONG_LINE_CHARS: int = int(os.getenv("FAILSAFE_LONG_LINE_CHARS", "120"))
    LARGE_FILE_LINES: int = int(os.getenv("FAILSAFE_LARGE_FILE_LINES", "1000"))


settings = Settings()
