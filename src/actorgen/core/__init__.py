"""
Core Package.

Contains the class compilation logic:
- Class Compiler (engine)
- Rewriting stages (merging, state threading, dispatch, lifecycle)
- Name mangling and snippet parsing
- Trace logging
"""
