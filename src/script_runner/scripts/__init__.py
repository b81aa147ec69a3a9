"""
Script subsystem.

Components:
- script_models.py: data structures (ScriptType, Script, summaries)
- script_store.py: script definitions + payload files, persisted as JSON
- script_executor.py: launches one interpreter process per run, builds RunResult
- script_api.py: manual run helper used by the console and the scheduler
"""
