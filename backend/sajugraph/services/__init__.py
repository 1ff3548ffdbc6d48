# services package - lazy imports to prevent startup errors

# Lazy import: 실제 사용할 때 import
default_engine = None


def get_default_engine():
    """기본 설정(settings.default_school) 엔진"""
    global default_engine
    if default_engine is None:
        from sajugraph.services.engine import create_engine
        default_engine = create_engine()
    return default_engine
