"""
各服务共享的认证组件
- 统一配置
- Token 编解码
- 角色层级策略
- 认证过滤器
"""
