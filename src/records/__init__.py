"""业务记录模块。

管理联系人、订单（含明细）、产品（含图片和库存）的持久化与 CRUD API。
"""
