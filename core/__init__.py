"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理彩券的狀態判斷與轉換
- Manager：管理彩券的生命週期（建立、售票、開獎、領獎、退款）
- Locks：並發控制工具
- Exceptions：業務異常分類
"""
