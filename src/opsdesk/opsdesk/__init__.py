"""OpsDesk package.

Business operations back office (attendance, payroll, tasks, inventory,
fulfillment, support, chat, marketing), organized by feature modules with a
thin Flask controller layer over service/repository layers.
"""
