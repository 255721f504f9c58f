"""
API 層：FastAPI routers

- games：遊戲操作與查詢
- ledger：模擬區塊高度
"""
