"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：PotatoGame，集中管理所有狀態轉換與規則
- 宿主介面：邏輯時鐘與呼叫者身分（由外部注入）
- 期限計算：持有時間、是否到期、剩餘區塊
- Manager：把狀態機包成 transaction，管理 Game 的生命週期
- Locks：並發控制工具
"""
