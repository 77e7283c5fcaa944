from __future__ import annotations

import json
from pathlib import Path

ABIS_DIR = Path(__file__).parent / "abis"

ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"
ERC4626_ABI_PATH = ABIS_DIR / "ERC4626.json"
DROME_POOL_ABI_PATH = ABIS_DIR / "DromePool.json"
BEEFY_VAULT_ABI_PATH = ABIS_DIR / "BeefyVault.json"
BEEFY_STRATEGY_ABI_PATH = ABIS_DIR / "BeefyStrategy.json"
REGISTRY_ABI_PATH = ABIS_DIR / "Registry.json"
AAVE_POOL_ABI_PATH = ABIS_DIR / "AavePool.json"
AAVE_ATOKEN_ABI_PATH = ABIS_DIR / "AaveAToken.json"
AAVE_ORACLE_ABI_PATH = ABIS_DIR / "AaveOracle.json"


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


def load_erc20_abi() -> list[dict]:
    """Load the ERC20 ABI."""
    return load_abi(ERC20_ABI_PATH)


def load_erc4626_abi() -> list[dict]:
    """Load the ERC4626 vault ABI (Sommelier cellars)."""
    return load_abi(ERC4626_ABI_PATH)


def load_drome_pool_abi() -> list[dict]:
    """Load the Aerodrome/Velodrome concentrated liquidity pool ABI."""
    return load_abi(DROME_POOL_ABI_PATH)


def load_beefy_vault_abi() -> list[dict]:
    return load_abi(BEEFY_VAULT_ABI_PATH)


def load_beefy_strategy_abi() -> list[dict]:
    return load_abi(BEEFY_STRATEGY_ABI_PATH)


def load_registry_abi() -> list[dict]:
    """Load the referral registry ABI."""
    return load_abi(REGISTRY_ABI_PATH)


def load_aave_pool_abi() -> list[dict]:
    return load_abi(AAVE_POOL_ABI_PATH)


def load_aave_atoken_abi() -> list[dict]:
    return load_abi(AAVE_ATOKEN_ABI_PATH)


def load_aave_oracle_abi() -> list[dict]:
    return load_abi(AAVE_ORACLE_ABI_PATH)
