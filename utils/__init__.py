"""Shared helpers: logging setup, safe conversions, event publishing"""
