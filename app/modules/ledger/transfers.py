from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from app.modules.ledger.client import RawTransaction

@dataclass(frozen=True)
class TransferDelta:
    account_index: int
    owner_address: Optional[str]
    token_mint: str
    balance_change: Decimal

    @property
    def is_credit(self) -> bool:
        return self.balance_change > 0

def extract_transfers(tx: RawTransaction, token_mint: str) -> List[TransferDelta]:
    """
    Net balance change per token account for a single mint, ordered by
    account index. A missing pre (or post) balance counts as zero.
    Accounts with no net change are dropped.
    """
    pre = {b.account_index: b for b in tx.pre_token_balances if b.mint == token_mint}
    post = {b.account_index: b for b in tx.post_token_balances if b.mint == token_mint}

    deltas = []
    for index in sorted(set(pre) | set(post)):
        before = pre.get(index)
        after = post.get(index)
        change = (after.amount if after else Decimal(0)) - (before.amount if before else Decimal(0))
        if change == 0:
            continue
        owner = (after or before).owner
        deltas.append(TransferDelta(
            account_index=index,
            owner_address=owner,
            token_mint=token_mint,
            balance_change=change,
        ))
    return deltas
