from .registry import FunctionProvider, ModuleRegistry, ResultProvider, infer_kind

__all__ = ["ModuleRegistry", "ResultProvider", "FunctionProvider", "infer_kind"]
