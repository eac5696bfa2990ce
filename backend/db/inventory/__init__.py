"""
Event inventory.

Models:
- Item (one tracked stock line inside an event; quantity mirrors the sum of open batches when batches are used)
- Batch (received lot of stock, consumed FIFO by expiration then receipt date)
- AuditLog (physical count vs expected quantity)
- WasteLog (discarded stock with reason and cost impact)
"""
