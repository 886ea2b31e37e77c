"""Cyber Trader Pro - 外部サービス（AIプロバイダ・マーケットデータ・テクニカル分析）"""
