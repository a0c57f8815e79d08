"""Progression core: leveling curve, reward roller and domain models."""
