"""calio: 月カレンダーと日々の記録"""
