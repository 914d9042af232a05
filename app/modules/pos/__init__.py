"""
Módulo POS (Point of Sale)

ENTIDADES PRINCIPALES:
- PosOrder: orden de venta, standalone o ligada a una sesión de mesa
- PosOrderItem: líneas con precio congelado

REGLAS DE NEGOCIO:
- Las líneas "tracked" liquidan items ya descontados durante la sesión
- Las líneas "new" descuentan stock al crear la orden
- Solo se editan payment_status / payment_method
- Órdenes PAID no se pueden eliminar
"""
