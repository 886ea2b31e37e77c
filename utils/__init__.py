"""Cyber Trader Pro - ユーティリティ"""
