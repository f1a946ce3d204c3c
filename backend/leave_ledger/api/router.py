from fastapi import APIRouter

from leave_ledger.api.balances import employee_balance_router, employee_ledger_router
from leave_ledger.api.credit import credit_run_router, cycle_close_router
from leave_ledger.api.ledger import ledger_write_router
from leave_ledger.api.policies import router as policies_router

api_router = APIRouter()
api_router.include_router(employee_balance_router)
api_router.include_router(employee_ledger_router)
api_router.include_router(ledger_write_router)
api_router.include_router(credit_run_router)
api_router.include_router(cycle_close_router)
api_router.include_router(policies_router)
