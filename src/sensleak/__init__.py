"""sensleak — detect secrets committed to git history."""

__version__ = "0.1.1"
