from learninghub.health.router import router


__all__ = ["router"]
