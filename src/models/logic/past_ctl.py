# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Past-time temporal operators evaluated on a device's own history.

Each operator is a call-site: it keeps O(1) state in the round context
under `label`, so two uses of the same operator need two labels (or two
partitions). Nothing is ever looked up ahead of the current round.
"""

def yesterday(ctx, label: str, value: bool, default: bool = False) -> bool:
    """Value of `value` at the previous round of this device, `default` at its first round."""
    return bool(ctx.old(label, default, bool(value)))

def globally(ctx, label: str, value: bool) -> bool:
    """True while `value` held at every round since the device started."""
    return ctx.rep(label, True, lambda held: held and bool(value))

def since(ctx, label: str, p: bool, q: bool) -> bool:
    """True iff `q` held at some past round and `p` held at every round after it."""
    return ctx.rep(label, False, lambda held: bool(q) or (bool(p) and held))

def implies(a: bool, b: bool) -> bool:
    """Material implication on booleans (False <= True)."""
    return bool(a) <= bool(b)
