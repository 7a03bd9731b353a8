#! /usr/bin/env python
# -*- coding: utf-8 -*-


"""
    支付宝开放平台相关配置
"""

import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class AlipayConfig(object):

    # 应用ID(配置项)
    app_id = os.environ.get("ALIPAY_APP_ID", "")

    # 应用私钥, PEM 内容, 裸 base64 或 .pem 文件路径(配置项)
    private_key = os.environ.get(
        "ALIPAY_PRIVATE_KEY", os.path.join(BASE_DIR, "keys", "app_private_key.pem")
    )

    # 支付宝公钥, PEM 内容, 裸 base64 或 .pem 文件路径(配置项)
    ali_public_key = os.environ.get(
        "ALIPAY_PUBLIC_KEY", os.path.join(BASE_DIR, "keys", "alipay_public_key.pem")
    )

    # 页面跳转同步通知地址(GET)(配置项)
    return_url = os.environ.get("ALIPAY_RETURN_URL", "http://公网IP/alipay/return/")

    # 服务器异步通知地址(POST), 需外网可访问(配置项)
    notify_url = os.environ.get("ALIPAY_NOTIFY_URL", "http://公网IP/alipay/notify/")

    # 网关环境: normal 正式环境, dev 沙箱环境
    mode = os.environ.get("ALIPAY_MODE", "dev")

    # 签名方式(RSA2: SHA256withRSA, RSA: SHA1withRSA)
    sign_type = os.environ.get("ALIPAY_SIGN_TYPE", "RSA2")

    # 字符编码格式
    charset = os.environ.get("ALIPAY_CHARSET", "utf-8")

    # 请求超时时间(秒)
    timeout = int(os.environ.get("ALIPAY_TIMEOUT", "30"))
