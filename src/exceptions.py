#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""
    支付宝接口异常定义
"""


class AlipayException(Exception):
    """
    所有异常的基类, raw 保存引发异常的原始数据
    """

    def __init__(self, message="", raw=None):
        super(AlipayException, self).__init__(message)
        self.raw = raw if raw is not None else {}


class InvalidGatewayException(AlipayException):
    """
    支付网关不存在
    """


class InvalidConfigException(AlipayException):
    """
    配置缺失或格式错误
    """


class InvalidKeyException(InvalidConfigException):
    """
    密钥缺失, 无法解析或不是 RSA 密钥
    """


class InvalidSignException(AlipayException):
    """
    签名校验失败
    """


class InvalidSignatureFormatException(InvalidSignException):
    """
    签名无法校验(非 base64 签名或不支持的 sign_type)
    """


class GatewayException(AlipayException):
    """
    支付宝返回的业务错误
    """

    def __init__(self, message="", code=None, msg=None, sub_code=None, sub_msg=None, raw=None):
        super(GatewayException, self).__init__(message, raw)
        self.code = code
        self.msg = msg
        self.sub_code = sub_code
        self.sub_msg = sub_msg


class TransportException(AlipayException):
    """
    网络层错误(超时, 连接失败, 非 2xx 状态码), 可由调用方自行重试
    """
