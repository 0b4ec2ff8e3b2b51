import asyncio
import os

from playwright.async_api import async_playwright

from infra.logger import logger

# 只保留条目页头部和正文区域
REGION_STYLE = """
    body * { visibility: hidden !important; }
    .headerHero.clearit,
    .headerHero.clearit *,
    .mainWrapper.mainXL,
    .mainWrapper.mainXL * {
        visibility: visible !important;
    }
    body { visibility: visible !important; }
    .headerHero.clearit { margin-bottom: 20px !important; }
"""
REGION_SELECTORS = [".headerHero.clearit", ".mainWrapper.mainXL"]


class BangumiScreenshot:
    """Bangumi 条目页截图工具"""

    def __init__(self, cache_dir: str = "cache/bangumi_screenshots"):
        self.cache_dir = cache_dir
        os.makedirs(self.cache_dir, exist_ok=True)

    async def capture_subject_page(self, url: str, subject_id: str) -> str:
        """
        使用 Playwright 截取条目页的头部和正文，返回图片路径，失败时返回空串
        """
        output_filename = os.path.join(self.cache_dir, f"{subject_id}.png")

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                try:
                    context = await browser.new_context(
                        viewport={'width': 1200, 'height': 800},
                        device_scale_factor=1,
                    )
                    page = await context.new_page()
                    await page.goto(url, wait_until='domcontentloaded', timeout=15000)
                    await asyncio.sleep(3)

                    found = False
                    for selector in REGION_SELECTORS:
                        if await page.locator(selector).count() > 0:
                            found = True
                            break
                    if not found:
                        logger.debug("BangumiScreenshot", f"条目 {subject_id} 未找到指定的页面元素")
                        return ""

                    try:
                        await page.add_style_tag(content=REGION_STYLE)
                    except Exception as e:
                        logger.warn("BangumiScreenshot", f"样式注入失败: {e}")

                    await page.screenshot(path=output_filename, full_page=True)
                    logger.info("BangumiScreenshot", f"条目 {subject_id} 截图成功: {output_filename}")
                    return output_filename
                finally:
                    await browser.close()

        except Exception as e:
            logger.warn("BangumiScreenshot", f"截图条目 {subject_id} 时出错: {e}")
            return ""

    def cleanup_old_screenshots(self, max_files: int = 20):
        """只保留最近的 max_files 张截图"""
        try:
            files_with_time = []
            for file in os.listdir(self.cache_dir):
                file_path = os.path.join(self.cache_dir, file)
                if os.path.isfile(file_path):
                    files_with_time.append((file_path, os.path.getmtime(file_path)))

            files_with_time.sort(key=lambda x: x[1])
            for file_path, _ in files_with_time[:-max_files]:
                os.remove(file_path)
                logger.debug("BangumiScreenshot", f"清理旧截图: {file_path}")

        except OSError as e:
            logger.warn("BangumiScreenshot", f"清理旧截图时出错: {e}")
