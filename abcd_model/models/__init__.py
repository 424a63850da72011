"""ABCD model core: simulator, objective, metrics and calibration."""
