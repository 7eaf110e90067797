"""
服務層

這個 package 包含彩券引擎依賴的外部協作者與輔助邏輯，不負責狀態轉換：
- assets：Balance（可分割合併的金額）與 PrizeAsset（不透明獎品）
- clock / randomness：時間來源與開獎亂數來源
- token_service：Capability / Ticket 的發行、驗證、銷毀、轉讓
- event_service：事件紀錄
"""
