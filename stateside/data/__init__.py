"""Reference data — static defaults and approximate bulletin history.

Modules
-------
defaults
    Static ``ProcessingTimes`` and both bulletin charts; the fallback for
    every field live data fails to supply.
bulletin_history
    Monthly Final Action series per category × chargeability pair, the
    input of the velocity model.
"""
