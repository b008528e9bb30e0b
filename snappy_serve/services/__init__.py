"""
                        Services Module

Business logic for the cafe API. External collaborators follow the
hybrid pattern: a Mock implementation for development and a Real one
for production, selected by ENV_MODE (notifications) or STORAGE_BACKEND
(storage).

Services:
    - phone: phone normalization and validation
    - lifecycle: order status state machine
    - billing: bill arithmetic
    - otp: one-time code sessions
    - orders: order/bill/customer facade over storage
    - reporting: daily/weekly/monthly aggregation
    - notifications: WhatsApp/SMS delivery
    - storage: in-memory and SQL stores
    - excel_manager: report workbook export
"""
