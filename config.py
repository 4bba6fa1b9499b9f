from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DEBUG: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    LOG_LEVEL: str = "INFO"

    # Role wallets - defaults are the local development accounts 0-2
    # of the "test test ... junk" mnemonic. Never use them on a real network.
    MANUFACTURER_PRIVATE_KEY: str = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
    DISTRIBUTOR_PRIVATE_KEY: str = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
    RETAILER_PRIVATE_KEY: str = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"

    # Role addresses used at initialization; unset falls back to the role wallet.
    # API users always sign with the key above, so an address that differs from it
    # (here or via PUT /roles/*) leaves that demo user unable to advance batches.
    DISTRIBUTOR_ADDRESS: Optional[str] = None
    RETAILER_ADDRESS: Optional[str] = None

    # Ledger
    LEDGER_STATE_PATH: str = str(BASE_DIR / "data" / "ledger_state.json")  # "" keeps state in memory
    LEDGER_ALLOW_TRANSFER: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

# Global settings instance
settings = Settings()
