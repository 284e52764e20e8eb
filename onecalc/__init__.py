"""OneCalc -- scenario planning engine for multi-year cost and revenue forecasts."""

__version__ = "0.1.0"
