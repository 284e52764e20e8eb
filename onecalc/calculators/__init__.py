"""Built-in calculator modules and their formulas."""

from .formulas import (
    EmployeeCostsParams,
    TransactionFeesParams,
    calculate_employee_costs,
    calculate_transaction_fees,
)
from .modules import CalculatorModule, EmployeeCostsModule, SchemaBaselineModule, TransactionFeesModule
from .registry import ModuleTypeDefinition, get_all_module_types, get_module_type, register_module_type

__all__ = [
    "CalculatorModule",
    "EmployeeCostsModule",
    "TransactionFeesModule",
    "SchemaBaselineModule",
    "EmployeeCostsParams",
    "TransactionFeesParams",
    "calculate_employee_costs",
    "calculate_transaction_fees",
    "ModuleTypeDefinition",
    "get_all_module_types",
    "get_module_type",
    "register_module_type",
]
