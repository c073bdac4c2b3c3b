"""ID 生成ユーティリティ。

弱点アイテムの document ID は (user, item) の組から決定的に導出し、
同じ組に対して 2 件目のドキュメントが作られないようにする。Firestore の
パス制約（`/` 禁止など）に抵触しないよう、生の ID ではなくハッシュを使う。
"""

from __future__ import annotations

import hashlib
import uuid


def weak_item_id(user_id: str, item_id: str) -> str:
    """Return the stable weak item ID for a (user, item) pair.

    区切りに unit separator (0x1f) を使うことで `("a:b", "c")` と
    `("a", "b:c")` が同じ ID にならないようにしている。
    """

    digest = hashlib.sha256(f"{user_id}\x1f{item_id}".encode("utf-8")).hexdigest()
    return f"wi:{digest[:40]}"


def generate_attempt_id() -> str:
    """AttemptScore の新規 ID を生成する。"""

    return f"att:{uuid.uuid4().hex}"
