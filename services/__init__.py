"""
服務層

這個 package 包含資料存取邏輯，不負責狀態轉換：
- EventService：事件紀錄的寫入與查詢
- LedgerService：模擬區塊高度（邏輯時鐘）
"""
