"""
cases.domain — Framework-free case engines.

Modules
-------
patch        ``CasePatch``: tri-state (unset / null / value) partial update.
dates        Date invariant validator.
scoring      Weighted user/admin evaluation scoring.
transitions  Status state machine and auto-promotion rules.

Nothing in here touches the ORM; ``cases.services`` feeds these engines
plain values read from locked rows and persists what they return.
"""
