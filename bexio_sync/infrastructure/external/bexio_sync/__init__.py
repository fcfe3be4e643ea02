"""
Pipeline de sincronización one-way: bexio -> Supabase (PostgREST).

Este paquete se ejecuta tanto desde el endpoint de sync (cron externo o
invocación manual) como desde el script CLI.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar datos (UPSERT por id).
- Aislamiento: el fallo de una entidad nunca aborta el resto de la corrida.
- Orden por fases: datos de referencia antes que transaccionales.
- Auditoría: cada entidad y cada corrida dejan una fila en sync_log.
"""
