"""Spaced-repetition core for vocabulary practice.

成績履歴から弱点アイテムを検出し、SM-2 派生のアルゴリズムで復習日を決め、
新規コンテンツと復習を混ぜた日次キューを組み立てるライブラリ。
HTTP ルーティングや認証は扱わない。
"""

__version__ = "0.1.0"
