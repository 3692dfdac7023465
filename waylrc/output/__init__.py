from waylrc.output.emitter import OutputEmitter, build_record, escape, format_metadata

__all__ = ["OutputEmitter", "build_record", "escape", "format_metadata"]
