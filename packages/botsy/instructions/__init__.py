from .service import InstructionService

__all__ = ["InstructionService"]
