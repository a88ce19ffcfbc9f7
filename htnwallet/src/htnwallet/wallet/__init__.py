"""
Wallet functionality: UTXO selection, fee estimation, building and signing.
"""

from htnwallet.wallet.builder import BuilderState, TransactionBuilder
from htnwallet.wallet.fee_estimator import FeeEstimator
from htnwallet.wallet.keys import KeyPair, generate_key_pair, import_key_pair
from htnwallet.wallet.models import Balance, CoinSelection, MaturitySplit
from htnwallet.wallet.selection import SelectionPolicy, select_utxos
from htnwallet.wallet.service import WalletService
from htnwallet.wallet.signing import get_transaction_id, sign_input
from htnwallet.wallet.utxo import filter_mature, separate

__all__ = [
    "Balance",
    "BuilderState",
    "CoinSelection",
    "FeeEstimator",
    "KeyPair",
    "MaturitySplit",
    "SelectionPolicy",
    "TransactionBuilder",
    "WalletService",
    "filter_mature",
    "generate_key_pair",
    "get_transaction_id",
    "import_key_pair",
    "select_utxos",
    "separate",
    "sign_input",
]
