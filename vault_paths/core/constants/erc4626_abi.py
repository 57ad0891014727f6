from __future__ import annotations


def _view(name: str, inputs: list[tuple[str, str]], output: str) -> dict:
    return {
        "type": "function",
        "stateMutability": "view",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": output}],
    }


def _write(name: str, inputs: list[tuple[str, str]]) -> dict:
    return {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": "uint256"}],
    }


# Vault shares are ERC-20, so balanceOf/decimals live here too.
ERC4626_ABI = [
    _view("asset", [], "address"),
    _view("decimals", [], "uint8"),
    _view("totalSupply", [], "uint256"),
    _view("totalAssets", [], "uint256"),
    _view("balanceOf", [("owner", "address")], "uint256"),
    _view("convertToAssets", [("shares", "uint256")], "uint256"),
    _view("convertToShares", [("assets", "uint256")], "uint256"),
    _view("previewDeposit", [("assets", "uint256")], "uint256"),
    _view("previewWithdraw", [("assets", "uint256")], "uint256"),
    _view("previewRedeem", [("shares", "uint256")], "uint256"),
    _view("maxWithdraw", [("owner", "address")], "uint256"),
    _view("maxRedeem", [("owner", "address")], "uint256"),
    _write("deposit", [("assets", "uint256"), ("receiver", "address")]),
    _write(
        "withdraw",
        [("assets", "uint256"), ("receiver", "address"), ("owner", "address")],
    ),
    _write(
        "redeem",
        [("shares", "uint256"), ("receiver", "address"), ("owner", "address")],
    ),
]
